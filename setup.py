"""
Installation setup for mtgenrich
"""
import configparser
import pathlib

import setuptools

# Establish project directory
project_root: pathlib.Path = pathlib.Path(__file__).resolve().parent

# Read config details to determine version-ing
config_file = project_root.joinpath("mtgenrich/resources/mtgenrich.properties")
config = configparser.ConfigParser()
if config_file.is_file():
    config.read(str(config_file))

readme_file = project_root.joinpath("README.md")

setuptools.setup(
    name="mtgenrich",
    version=config.get("MTGEnrich", "version", fallback="1.0.0+fallback"),
    description="Rate limited Scryfall enrichment of imported Magic: the Gathering card lists",
    long_description=readme_file.open(encoding="utf-8").read()
    if readme_file.is_file()
    else "",
    long_description_content_type="text/markdown",
    license="MIT",
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python",
        "Topic :: Games/Entertainment",
    ],
    keywords=[
        "Card Games",
        "Collectible",
        "MTG",
        "Scryfall",
        "Trading Cards",
        "Magic: The Gathering",
    ],
    python_requires=">=3.10",
    include_package_data=True,
    packages=setuptools.find_packages(include=["mtgenrich", "mtgenrich.*"]),
    package_data={"mtgenrich": ["resources/*.properties"]},
    install_requires=project_root.joinpath("requirements.txt")
    .open(encoding="utf-8")
    .readlines()
    if project_root.joinpath("requirements.txt").is_file()
    else [],  # Use the requirements file, if able
    extras_require={"test": ["pytest", "pytest-asyncio"]},
    entry_points={"console_scripts": ["mtgenrich=mtgenrich.__main__:main"]},
)
