from setuptools import setup, find_packages

setup(
    name="securityspy",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "httpx>=0.24.0",
        "aiofiles>=23.1.0",
        "pydantic>=2.11",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "respx>=0.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "securityspy-watch=securityspy.__main__:main_entry",
        ],
    },
    python_requires=">=3.9",
    description="An asyncio client for SecuritySpy servers with a self-healing event stream watcher",
    keywords="securityspy, camera, surveillance, events",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
