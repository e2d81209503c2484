[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "packetsniff"
version = "1.0.0"
description = "Packet capture and traffic monitoring with pcap file support, filter expressions and live statistics"
requires-python = ">=3.10"
dependencies = []
keywords = ["packet", "sniffer", "pcap", "network", "monitoring", "traffic", "filter"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: X11 Applications",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
packetsniff = "packetsniff.gui:main"

[tool.hatch.build.targets.wheel]
packages = ["packetsniff"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
