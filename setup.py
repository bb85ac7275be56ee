"""
Gotify MQTT Forwarder Setup Configuration

Makes the forwarder installable as a Python package, allowing the plugin to
import from the 'src' modules.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_file.exists():
    requirements = [
        line.strip()
        for line in requirements_file.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="gotify-mqtt-forwarder",
    version="1.0.0",
    description="Gotify plugin host that forwards hub messages to an MQTT broker",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="FaintGhost",
    url="https://github.com/FaintGhost/gotify-webhook-mqtt",
    license="MIT",

    # Package discovery: core/models live under src/, the plugin at the root
    packages=find_packages(where="src") + find_packages(include=["plugins", "plugins.*"]),
    package_dir={"": "src", "plugins": "plugins"},
    py_modules=["main"],

    include_package_data=True,

    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4",
            "hypothesis>=6.80",
            "httpx>=0.24",
        ],
    },

    python_requires=">=3.10",

    entry_points={
        "console_scripts": [
            "gotify-mqtt=main:main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Communications",
        "Topic :: System :: Networking",
    ],

    keywords="gotify mqtt notifications webhook forwarder",
)
