from setuptools import find_packages, setup

setup(
    name="talkmatch",
    version="0.1.0",
    description="Locate, edit and track wiki talk page comments in their source markup",
    packages=find_packages(include=["talkmatch", "talkmatch.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=["pydantic>=2", "PyYAML>=6"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["talkmatch=talkmatch.cli:main"]},
)
