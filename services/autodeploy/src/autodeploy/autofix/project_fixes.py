"""Fixes that depend only on the project type, applied before the build loop."""

import json
from pathlib import Path
import re
import shutil

from shared.models import ProjectType

from ..commands import read_package_json, write_package_json
from ..files import iter_files
from .readiness import NODE_ENTRY_FILES

PLACEHOLDER_INDEX = """<!DOCTYPE html>
<html>
<head>
  <title>Autodeploy</title>
  <style>
    body { font-family: sans-serif; padding: 2rem; text-align: center; }
  </style>
</head>
<body>
  <h1>Deployed with Autodeploy</h1>
  <p>This is a placeholder page. Replace with your actual content.</p>
</body>
</html>
"""

PLACEHOLDER_SERVER = """const express = require('express');
const app = express();
const port = process.env.PORT || 3000;

app.use(express.static('public'));

app.get('/', (req, res) => {
  res.send('Hello from Autodeploy!');
});

app.listen(port, () => {
  console.log('Server is running on port', port);
});
"""

NEXT_SCRIPTS = {"dev": "next dev", "build": "next build", "start": "next start"}
FRONTEND_TYPES = (ProjectType.NEXTJS.value, ProjectType.REACT_SPA.value)

TSCONFIG_BASE = {
    "target": "es2016",
    "module": "commonjs",
    "esModuleInterop": True,
    "forceConsistentCasingInFileNames": True,
    "strict": True,
    "skipLibCheck": True,
}
TSCONFIG_FRONTEND = {
    "jsx": "react-jsx",
    "module": "esnext",
    "moduleResolution": "node",
    "lib": ["dom", "dom.iterable", "esnext"],
    "allowJs": True,
    "noEmit": True,
    "incremental": True,
    "resolveJsonModule": True,
    "isolatedModules": True,
}


def apply_project_type_fixes(folder: Path, project_type: str | None, project_name: str) -> list[str]:
    if project_type == ProjectType.STATIC_WEB.value:
        actions = _fix_static_web(folder)
    elif project_type == ProjectType.NODE_BACKEND.value:
        actions = _fix_node_backend(folder, project_name)
    elif project_type in FRONTEND_TYPES:
        actions = _fix_react_project(folder, project_type)
    else:
        actions = ["No specific auto-fixes available for this project type"]

    tsconfig = generate_tsconfig(folder, project_type)
    if tsconfig:
        actions.append(tsconfig)
    return actions


def generate_tsconfig(folder: Path, project_type: str | None) -> str | None:
    """Write a ``tsconfig.json`` for TypeScript sources that ship without one."""
    if not any(rel.suffix == ".ts" for rel in iter_files(folder)):
        return None
    path = folder / "tsconfig.json"
    if path.exists():
        return "tsconfig.json already exists"

    config: dict = {"compilerOptions": dict(TSCONFIG_BASE)}
    if project_type in FRONTEND_TYPES:
        config["compilerOptions"].update(TSCONFIG_FRONTEND)
        config["include"] = ["**/*.ts", "**/*.tsx"]
        config["exclude"] = ["node_modules"]
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return "Generated tsconfig.json"


def _fix_static_web(folder: Path) -> list[str]:
    index = folder / "index.html"
    if index.is_file():
        return ["index.html already exists"]

    html_files = sorted(folder.rglob("*.html"))
    preferred = [f for f in html_files if f.name in ("main.html", "home.html")]
    source = (preferred or html_files or [None])[0]
    if source is not None:
        shutil.copyfile(source, index)
        return [f"Created index.html from {source.name}"]

    index.write_text(PLACEHOLDER_INDEX, encoding="utf-8")
    return ["Created placeholder index.html"]


def _fix_node_backend(folder: Path, project_name: str) -> list[str]:
    actions = []
    package = read_package_json(folder)
    if package is None and (folder / "package.json").exists():
        actions.append("Could not parse package.json, skipping updates")
    elif package is None:
        write_package_json(
            folder,
            {
                "name": re.sub(r"[^a-z0-9]", "-", project_name.lower()),
                "version": "1.0.0",
                "main": "server.js",
                "scripts": {"start": "node server.js"},
                "dependencies": {"express": "^4.18.0"},
            },
        )
        actions.append("Created minimal package.json")
    else:
        scripts = package.setdefault("scripts", {})
        if scripts.get("start"):
            actions.append("package.json already has start script")
        else:
            entry = next((f for f in NODE_ENTRY_FILES if (folder / f).is_file()), "server.js")
            scripts["start"] = f"node {entry}"
            write_package_json(folder, package)
            actions.append("Added start script to package.json")

    if any((folder / name).is_file() for name in NODE_ENTRY_FILES):
        actions.append("Entry point file detected")
    else:
        (folder / "server.js").write_text(PLACEHOLDER_SERVER, encoding="utf-8")
        actions.append("Created placeholder server.js")
    return actions


def _fix_react_project(folder: Path, project_type: str) -> list[str]:
    package = read_package_json(folder)
    if package is None:
        return ["No package.json found, skipping script fixes"]

    scripts = package.setdefault("scripts", {})
    updated = False

    if project_type == ProjectType.NEXTJS.value:
        for key, value in NEXT_SCRIPTS.items():
            if not scripts.get(key):
                scripts[key] = value
                updated = True
        message = "Added Next.js build scripts"
    else:
        if not scripts.get("start"):
            deps = {**package.get("dependencies", {}), **package.get("devDependencies", {})}
            if "vite" in deps:
                scripts["start"] = "vite"
                scripts.setdefault("build", "vite build")
            else:
                scripts["start"] = "react-scripts start"
                scripts.setdefault("build", "react-scripts build")
            updated = True
        message = "Added React build scripts"

    if not updated:
        return ["Build scripts already configured"]
    write_package_json(folder, package)
    return [message]
