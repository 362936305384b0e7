"""Tests for working-directory to log-directory encoding."""

from claude_usage_monitor.utils.path_codec import (
    encode_path,
    extract_project_name,
    project_dir_name,
)


class TestEncodePath:
    def test_absolute_path(self):
        assert encode_path("/home/wiz/AI/LLM") == "home-wiz-AI-LLM"

    def test_root_path(self):
        assert encode_path("/") == ""

    def test_empty_path(self):
        assert encode_path("") == ""

    def test_trailing_slash(self):
        assert encode_path("/home/wiz/project/") == "home-wiz-project"

    def test_hyphens_kept(self):
        assert encode_path("/home/user/projects/my-app") == "home-user-projects-my-app"

    def test_windows_path(self):
        assert encode_path("C:\\Users\\wiz\\project") == "C:-Users-wiz-project"


class TestProjectDirName:
    def test_absolute_path(self):
        assert project_dir_name("/home/wiz/AI/LLM") == "-home-wiz-AI-LLM"

    def test_nested_path(self):
        assert project_dir_name("/Users/wiz/src/my-cool-app") == "-Users-wiz-src-my-cool-app"


class TestExtractProjectName:
    def test_simple(self):
        assert extract_project_name("/home/wiz/AI/LLM") == "LLM"

    def test_trailing_slash(self):
        assert extract_project_name("/home/wiz/myapp/") == "myapp"

    def test_root(self):
        assert extract_project_name("/") == "/"

    def test_empty(self):
        assert extract_project_name("") == ""
