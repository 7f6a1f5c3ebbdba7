from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

with open("requirements.txt", "r") as fh:
    reqs = fh.read()

setup(
    name="med-docencap",
    version="1.0.0",
    description="Encapsulation of CDA, PDF and 3D model documents into DICOM files.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=reqs,
    package_dir={"": "src"},
    packages=find_packages("src"),
    extras_require={
        "test": ["pytest", "pytest-mock"],
    },
    entry_points={"console_scripts": ["docencap = docencap.cli.__main__:cli"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "License :: OSI Approved :: Apache Software License",
        "Development Status :: 4 - Beta",
    ],
    python_requires=">=3.10",
)
