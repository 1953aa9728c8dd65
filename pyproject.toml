[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gitsage"
version = "0.1.0"
description = "Generate Conventional Commits messages for staged Git changes with AI providers (OpenAI, DeepSeek, Ollama)"
requires-python = ">=3.10"
keywords = [
    "git",
    "commit",
    "commit-message",
    "conventional-commits",
    "ai",
    "llm",
    "openai",
    "deepseek",
    "ollama",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Version Control :: Git",
]
dependencies = [
    "httpx>=0.24",
    "jinja2>=3.1",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "respx>=0.20",
    "hypothesis>=6.80",
]

[tool.hatch.build.targets.wheel]
packages = ["gitsage"]

[tool.hatch.build.targets.sdist]
include = ["gitsage", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
