from setuptools import setup, find_packages

setup(
    name="uiauto-healing",
    version="1.0.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "pyyaml>=5.4",
        "jsonschema>=4.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    package_data={
        "uiauto_healing": ["schemas/*.json"],
    },
)
