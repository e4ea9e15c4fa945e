# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="layerscope",
    version="0.1.0",
    description="Inspect container image layers, diff them and report wasted space",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["layerscope", "layerscope.*"]),
    python_requires=">=3.9",
    install_requires=[],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'layerscope=layerscope.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
