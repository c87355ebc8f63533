from setuptools import setup, find_packages

setup(
    name="gauntlet",
    version="1.0.0",
    description="GAUNTLET: resilience and security assessment harness for HTTP APIs",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"gauntlet": ["default_config.yaml"]},
    install_requires=[
        "requests",
        "pyyaml",
        "colorama",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "gauntlet=gauntlet.cli:main",
        ],
    },
    python_requires=">=3.8",
)
