from setuptools import setup, find_packages

setup(
    name="brewer-pm",
    version="0.1.0",
    description="Command router, dependency resolver and self-updater for a formula-based package manager.",
    author="Seu Nome",
    license="GPL-3.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.8",
    install_requires=[
        "rich>=13.0.0",
        "GitPython>=3.1.0",
        "requests>=2.28.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "brewer=brewer.modules.cli:main",
        ],
    },
)
