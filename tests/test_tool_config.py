from analysis_engine.tools.bandit import BanditConfig
from analysis_engine.tools.base import ToolConfig
from analysis_engine.tools.ruff import RuffConfig


def test_valid_common_config(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    cfg = ToolConfig(tool_name="x", source_path=str(tmp_path), output_file=str(out / "r.json"))
    assert cfg.validate_config().is_clean


def test_common_errors():
    v = ToolConfig().validate_config()
    assert "Tool name cannot be empty" in v.errors
    assert "Source path cannot be empty" in v.errors
    assert any("Output file not specified" in w for w in v.warnings)
    assert not v.is_valid


def test_missing_paths(tmp_path):
    cfg = ToolConfig(
        tool_name="x",
        source_path=str(tmp_path / "nope"),
        output_file=str(tmp_path / "missing" / "r.json"),
        include_paths=[str(tmp_path / "inc")],
    )
    v = cfg.validate_config()
    assert any(e.startswith("Source path does not exist") for e in v.errors)
    assert any(e.startswith("Output directory does not exist") for e in v.errors)
    assert any(w.startswith("Include path does not exist") for w in v.warnings)


def test_definition_warnings(tmp_path):
    cfg = ToolConfig(tool_name="x", source_path=str(tmp_path), definitions=["", "A B", "DEBUG=1"])
    v = cfg.validate_config()
    assert v.is_valid
    assert "Empty definition found" in v.warnings
    assert "Definition contains spaces: A B" in v.warnings


def test_output_file_in_cwd_is_fine(tmp_path):
    cfg = ToolConfig(tool_name="x", source_path=str(tmp_path), output_file="report.json")
    assert cfg.validate_config().is_valid


def test_validation_does_not_mutate(tmp_path):
    cfg = RuffConfig(source_path=str(tmp_path), line_length=0)
    before = cfg.model_dump()
    cfg.validate_config()
    assert cfg.model_dump() == before


def test_clone_is_deep():
    cfg = RuffConfig(select=["E"])
    copy = cfg.clone()
    copy.select.append("F")
    assert cfg.select == ["E"]


def test_ruff_config_rules(tmp_path):
    cfg = RuffConfig(
        source_path=str(tmp_path),
        line_length=500,
        target_version="python3",
        select=["E", "bad code"],
        ignore=["E"],
    )
    v = cfg.validate_config()
    assert any("Line length" in e for e in v.errors)
    assert any("Unknown target version" in e for e in v.errors)
    assert "Suspicious rule selector: bad code" in v.warnings
    assert "Rules both selected and ignored: E" in v.warnings


def test_ruff_config_defaults_are_valid(tmp_path):
    cfg = RuffConfig(source_path=str(tmp_path), target_version="py311", line_length=100, select=["ALL"])
    assert cfg.validate_config().is_valid
    assert cfg.tool_name == "ruff"
    assert cfg.display_name() == "Ruff"


def test_bandit_config_rules(tmp_path):
    cfg = BanditConfig(
        source_path=str(tmp_path),
        severity_level="extreme",
        confidence_level="high",
        skips=["B101", "X1"],
        tests=["B101"],
    )
    v = cfg.validate_config()
    assert v.errors == ["Invalid severity level: extreme"]
    assert "Unknown bandit test id: X1" in v.warnings
    assert "Tests both selected and skipped: B101" in v.warnings
