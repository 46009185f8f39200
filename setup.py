# setup.py
from setuptools import setup, find_packages

setup(
    name="site_tracer",
    version="0.1.0",
    description="Async website link, asset and redirect checker SiteTracer",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"site_tracer.report": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "jinja2>=3.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "redis>=5.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": ["site_tracer=site_tracer.cli:cli"],
    },
    python_requires=">=3.11",
)
