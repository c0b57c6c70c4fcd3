from setuptools import setup, find_packages


with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="txbuilder",
    version="0.1.0",
    author="Example Author",
    author_email="author@example.com",
    description="Coin selection and legacy transaction building/signing for bitcoin, in pure python.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(),
    include_package_data=True,  # https://stackoverflow.com/a/56689053
    install_requires=["pycryptodome"],
    extras_require={"test": ["pytest"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.6",
)
