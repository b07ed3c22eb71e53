"""
Structure lint tests.
Verify that the component skeleton exists and follows conventions.
"""

from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent


class TestProjectStructure:
    def test_core_directories_exist(self) -> None:
        assert (PROJECT_ROOT / "blobfs" / "core").is_dir()
        assert (PROJECT_ROOT / "blobfs" / "core" / "ports").is_dir()

    def test_adapters_directory_exists(self) -> None:
        assert (PROJECT_ROOT / "blobfs" / "adapters" / "fs").is_dir()

    def test_component_files_present(self) -> None:
        component = PROJECT_ROOT / "blobfs" / "components" / "adapter"
        for name in ("__init__.py", "component.py", "models.py", "ports.py"):
            assert (component / name).is_file(), f"Missing {name} in adapter component"

    def test_init_files_present(self) -> None:
        """Python packages must have __init__.py files."""
        packages = [
            "blobfs",
            "blobfs/core",
            "blobfs/core/ports",
            "blobfs/adapters",
            "blobfs/adapters/fs",
            "blobfs/components",
            "blobfs/components/adapter",
            "blobfs/rules",
            "tests",
            "tests/unit",
            "tests/integration",
            "tests/regression",
        ]
        for pkg in packages:
            init_file = PROJECT_ROOT / pkg / "__init__.py"
            assert init_file.is_file(), f"Missing __init__.py in {pkg}"

    def test_ports_do_not_import_adapters(self) -> None:
        """Ports are pure interfaces; only adapters and components may implement them."""
        for path in (PROJECT_ROOT / "blobfs" / "core").rglob("*.py"):
            assert "blobfs.adapters" not in path.read_text(), f"{path} imports an adapter"
