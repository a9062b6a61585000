from setuptools import setup, find_packages

with open("readme.md", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="fronda",
    version="0.1.0",
    description="A library for loading the data of a render tree across asynchronous discovery passes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="HappyLoop @paulomtts",
    author_email="dev@happyloop.com",
    url="https://github.com/HappyLoop/fronda",
    packages=find_packages(include=["fronda", "fronda.*"]),
    install_requires=["pydantic>=2"],
    extras_require={"test": ["pytest", "pytest-asyncio"]},
    python_requires=">=3.10",
)
