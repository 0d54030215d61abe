from pathlib import Path

import setuptools

this_directory = Path(__file__).parent
long_description = (this_directory / "README.rst").read_text()

test_dependencies = ["pytest"]


setuptools.setup(
    name="bubblepack",
    version="0.1.0",
    description="Clustered bubble-chart layout: circle packing, grid partitioning and natural breaks.",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    packages=["bubblepack"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: MIT License",
        "Operating System :: Unix",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    keywords="bubble chart circle packing layout natural breaks jenks visualization",
    install_requires=[
        "numpy>=1.18",
        "scipy",
        "scikit-learn",
        "pandas",
        "matplotlib",
        "tqdm",
        "typer",
    ],
    test_suite="pytest",
    tests_require=test_dependencies,
    extras_require={"test": test_dependencies},
)
