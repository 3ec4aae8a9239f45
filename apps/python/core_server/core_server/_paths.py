from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=1)
def ensure_local_packages_importable() -> None:
    """
    Put each ``packages/python/<name>`` project on sys.path when running directly.

    Every package sits one level down (``packages/python/db_core/db_core``), so
    the project folders themselves are added, not ``packages/python``. Installed
    deployments (``pip install -e .``) already resolve them and are left alone.
    """

    current = Path(__file__).resolve()
    for ancestor in current.parents:
        packages_dir = ancestor / "packages" / "python"
        if not packages_dir.exists():
            continue
        for project in sorted(packages_dir.iterdir()):
            if not (project / project.name / "__init__.py").exists():
                continue
            project_path = str(project)
            if project_path not in sys.path:
                sys.path.insert(0, project_path)
        return
