[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tdxtapp"
version = "1.0.0"
description = "Measured Docker Compose start-up, TDX-style quotes and report-derived secp256k1 keys for trusted applications"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "tdx",
    "attestation",
    "confidential-computing",
    "docker-compose",
    "measurement",
    "rtmr",
    "secp256k1",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tapp-cli = "tdxtapp.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tdxtapp"]

[tool.pytest.ini_options]
addopts = "-ra"
