[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gitnoteslsp"
version = "0.0.2"
description = "A language server that shows git notes as inlay hints and hovers on the lines they annotate"
requires-python = ">=3.10"
dependencies = []
keywords = ["git", "git-notes", "lsp", "language-server", "blame", "inlay-hints"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Version Control :: Git",
    "Topic :: Text Editors :: Integrated Development Environments (IDE)",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
git-notes-lsp = "gitnoteslsp.server:main"

[tool.hatch.build.targets.wheel]
packages = ["gitnoteslsp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
