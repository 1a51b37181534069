import taskpilot
from taskpilot._version import TASKPILOT_VERSION
from taskpilot.versioning import build_version_output, get_version, system_info


def test_get_version_matches_constant():
    assert get_version() == TASKPILOT_VERSION
    assert taskpilot.__version__ == TASKPILOT_VERSION


def test_build_version_output_uses_package_version():
    output = build_version_output("ollama", "qwen2.5-coder:7b", system_info())

    assert f"Version:          {TASKPILOT_VERSION}" in output
    assert "Provider:         ollama" in output
    assert "Model:            qwen2.5-coder:7b" in output
    assert "Python:" in output
