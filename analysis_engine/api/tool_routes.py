from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from analysis_engine.core import containers
from analysis_engine.core.errors import ConfigurationMissingError, InvalidConfigTypeError, ToolNotFoundError
from analysis_engine.domain.schemas import AnalysisRequestModel, ToolInfo, ValidationResponse
from analysis_engine.tools.base import AnalysisTool

router = APIRouter(prefix="/api/tools", tags=["tools"])


def _tool(name: str) -> AnalysisTool:
    tool = containers.get_orchestrator().get_tool(name)
    if tool is None:
        raise HTTPException(status_code=404, detail=f"Tool not found: {name}")
    return tool


@router.get(
    "",
    response_model=list[ToolInfo],
    summary="List registered tools",
)
def list_tools() -> list[dict[str, Any]]:
    """Every registered tool with its availability and version."""
    orchestrator = containers.get_orchestrator()
    out = []
    for name in orchestrator.list_registered():
        tool = orchestrator.get_tool(name)
        out.append(
            {
                "name": name,
                "available": tool.is_available(),
                "version": tool.version(),
                "description": tool.description(),
                "supported_extensions": tool.supported_extensions(),
                "executable_path": tool.executable_path(),
            }
        )
    return out


@router.get(
    "/available",
    summary="List runnable tools",
    response_description="Names of tools whose program can be found",
)
def list_available_tools() -> list[str]:
    return containers.get_orchestrator().list_available()


@router.get(
    "/{name}/config",
    summary="Get tool configuration",
)
def get_config(name: str) -> dict[str, Any] | None:
    try:
        config = containers.get_orchestrator().get_configuration(name)
    except ToolNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return config.model_dump() if config is not None else None


@router.put(
    "/{name}/config",
    response_model=ValidationResponse,
    summary="Replace tool configuration",
    response_description="Validation of the new configuration",
)
def put_config(name: str, body: dict[str, Any]) -> dict[str, Any]:
    """Replace the whole configuration of one tool and return its validation.

    Fields not given fall back to the tool's defaults.
    """
    tool = _tool(name)
    config_type = type(tool.create_default_config())
    try:
        config = config_type.model_validate({"tool_name": name, **body})
        containers.get_orchestrator().set_configuration(name, config)
    except (ValidationError, InvalidConfigTypeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return tool.validate_configuration().to_dict()


@router.post(
    "/{name}/validate",
    response_model=ValidationResponse,
    summary="Validate tool configuration",
)
def validate_config(name: str) -> dict[str, Any]:
    try:
        return containers.get_orchestrator().validate_configuration(name).to_dict()
    except ToolNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/{name}/command",
    summary="Preview command line",
    response_description="Arguments the tool would be started with",
)
def preview_command(name: str, req: AnalysisRequestModel) -> list[str]:
    tool = _tool(name)
    try:
        return tool.build_command_line(req.to_domain())
    except ConfigurationMissingError as e:
        raise HTTPException(status_code=400, detail=str(e))
