"""GitHub Actions workflow rendering.

Produces the CI definition that drives ``shipper`` on a tag push:

- ``version``: resolves the version once and exposes it as a job output
- ``build`` (matrix) and ``build-host``: one job per target, each uploading
  its archive under an artifact name equal to the archive file name
- ``release``: ``needs`` every build job, downloads all archives into the
  store directory and runs ``shipper publish``

Unique upload names matter: uploading every archive under one shared name
would merge them into a single bundle on download.
"""

from __future__ import annotations

from pathlib import Path

from shipper.core.config import Config

TAG_PATTERN = "v*.*.*"
PYTHON_VERSION = "3.12"
INSTALL_COMMAND = "pip install shipper"


def _expr(inner: str) -> str:
    return "${{ " + inner + " }}"


def runner_for(triple: str) -> str:
    if "apple-darwin" in triple:
        return "macos-latest"
    if "windows" in triple:
        return "windows-latest"
    return "ubuntu-latest"


def _store_path(config: Config) -> str:
    try:
        return config.store_dir.relative_to(config.project_root).as_posix()
    except ValueError:
        return config.store_dir.as_posix()


def _setup_steps() -> list[str]:
    return [
        "    - uses: actions/checkout@v4",
        "",
        "    - uses: actions/setup-python@v5",
        "      with:",
        f"        python-version: '{PYTHON_VERSION}'",
        "",
        "    - name: Install shipper",
        f"      run: {INSTALL_COMMAND}",
    ]


def _build_job_steps(*, tool: str, target_expr: str, store: str) -> list[str]:
    version = _expr("needs.version.outputs.version")
    archive = f"{tool}-v{version}-{target_expr}.tar.gz"
    return [
        *_setup_steps(),
        "",
        f"    - name: Build {target_expr}",
        "      run: |",
        f"        shipper build --target {target_expr} --version {version}",
        "",
        "    - name: Upload archive",
        "      uses: actions/upload-artifact@v4",
        "      with:",
        f"        name: {archive}",
        f"        path: {store}/{archive}",
        "        if-no-files-found: error",
    ]


def render_workflow(config: Config, *, tool: str) -> str:
    """Render the release workflow for config as YAML text."""
    store = _store_path(config)
    fail_fast = "true" if config.fail_fast else "false"
    build_needs = ["build-host"]

    lines: list[str] = [
        "name: release",
        "",
        "on:",
        "  push:",
        "    tags:",
        f"      - '{TAG_PATTERN}'",
        "",
        "permissions:",
        "  contents: write",
        "",
        "jobs:",
        "",
        "  version:",
        "",
        "    runs-on: ubuntu-latest",
        "",
        "    outputs:",
        f"      version: {_expr('steps.version.outputs.version')}",
        "",
        "    steps:",
        *_setup_steps(),
        "",
        "    - name: Resolve version",
        "      id: version",
        "      run: |",
        '        echo "version=$(shipper version --tag "$GITHUB_REF_NAME")" >> "$GITHUB_OUTPUT"',
    ]

    if config.targets:
        build_needs.insert(0, "build")
        lines += [
            "",
            "  build:",
            "",
            "    needs: version",
            "",
            "    strategy:",
            f"      fail-fast: {fail_fast}",
            "      matrix:",
            "        target:",
            *(f"          - {t}" for t in config.targets),
            "",
            "    runs-on: ubuntu-latest",
            "",
            "    steps:",
            *_build_job_steps(tool=tool, target_expr=_expr("matrix.target"), store=store),
        ]

    lines += [
        "",
        "  build-host:",
        "",
        "    needs: version",
        "",
        f"    runs-on: {runner_for(config.host_target)}",
        "",
        "    steps:",
        *_build_job_steps(tool=tool, target_expr=config.host_target, store=store),
        "",
        "  release:",
        "",
        f"    needs: [version, {', '.join(build_needs)}]",
        "",
        "    runs-on: ubuntu-latest",
        "",
        "    steps:",
        *_setup_steps(),
        "",
        "    - name: Download archives",
        "      uses: actions/download-artifact@v4",
        "      with:",
        f"        path: {store}",
        "        merge-multiple: true",
        "",
        "    - name: Publish release",
        "      run: |",
        f"        shipper publish --version {_expr('needs.version.outputs.version')}",
        "      env:",
        f"        {config.token_env}: {_expr('secrets.GITHUB_TOKEN')}",
    ]
    return "\n".join(lines) + "\n"


def default_workflow_path(project_root: Path) -> Path:
    return project_root / ".github" / "workflows" / "release.yml"
