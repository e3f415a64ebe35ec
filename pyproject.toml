[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinyipsec"
version = "0.1.0"
description = "IPsec security policy and association databases with a pure-Python SHA-1 and HMAC-SHA1"
requires-python = ">=3.10"
dependencies = []
keywords = ["ipsec", "spd", "sad", "security-association", "security-policy", "sha1", "hmac"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tinyipsec"]

[tool.pytest.ini_options]
addopts = "-ra"
