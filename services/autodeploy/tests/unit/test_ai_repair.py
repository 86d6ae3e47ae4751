from unittest.mock import AsyncMock

import pytest

from autodeploy.autofix.ai_repair import AIFileRepairer, extract_file_path


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src" / "components").mkdir(parents=True)
    (tmp_path / "src" / "components" / "Nav.jsx").write_text("export default Nav")
    (tmp_path / "node_modules" / "react").mkdir(parents=True)
    (tmp_path / "node_modules" / "react" / "index.js").write_text("")
    return tmp_path


class TestExtractFilePath:
    def test_relative_path(self, project):
        error = "./src/components/Nav.jsx:4:10: Unexpected token"
        assert extract_file_path(error, project) == "src/components/Nav.jsx"

    def test_absolute_path_inside_project(self, project):
        error = f"Error in {project}/src/components/Nav.jsx (12:3)"
        assert extract_file_path(error, project) == "src/components/Nav.jsx"

    def test_skips_dependency_files(self, project):
        error = "at node_modules/react/index.js:1:1\nat src/components/Nav.jsx:2:1"
        assert extract_file_path(error, project) == "src/components/Nav.jsx"

    def test_skips_paths_that_do_not_exist(self, project):
        assert extract_file_path("src/Missing.tsx: error", project) is None

    def test_rejects_escape_from_project(self, project):
        outside = project.parent / "secret.js"
        outside.write_text("")
        assert extract_file_path("../secret.js: error", project) is None


class TestAIFileRepairer:
    @pytest.mark.asyncio
    async def test_no_file_identified(self, project):
        client = AsyncMock()

        action = await AIFileRepairer(client).repair_from_error(project, "it broke", "test")

        assert action == "Detected test errors but could not identify file to fix"
        client.repair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_client_leaves_file(self, project):
        action = await AIFileRepairer(None).repair_from_error(
            project, "src/components/Nav.jsx:1 error"
        )

        assert action.startswith("AI code repair unavailable")
        assert (project / "src/components/Nav.jsx").read_text() == "export default Nav"

    @pytest.mark.asyncio
    async def test_writes_repaired_content(self, project):
        client = AsyncMock()
        client.repair.return_value = "export default function Nav() {}\n"

        action = await AIFileRepairer(client).repair_from_error(
            project, "src/components/Nav.jsx:1 'Nav' is not defined"
        )

        assert action == "Repaired build error in src/components/Nav.jsx with AI code repair"
        assert (
            project / "src/components/Nav.jsx"
        ).read_text() == "export default function Nav() {}\n"
