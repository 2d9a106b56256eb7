import setuptools

try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Schedule IoT hub device-management jobs and track them to completion"

setuptools.setup(
    name="iotdm-jobs",
    version="0.1.0",
    description="Schedule IoT hub device-management jobs and track them to completion",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src", include=["iotdm_jobs", "iotdm_jobs.*"]),
    install_requires=[
        "httpx",
        "pydantic>=2",
        "python-dotenv",
        "rich",
        "typer",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "iotdm=iotdm_jobs.cli.main:app",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
)
