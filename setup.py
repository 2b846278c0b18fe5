"""
Setup script for Sphere BVH package
"""
from setuptools import setup, find_packages
from pathlib import Path

# Чтение README для long_description
this_directory = Path(__file__).parent
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding='utf-8')
else:
    long_description = "Sphere BVH - bounding volume hierarchy over sphere primitives"

version = "1.0.0"

setup(
    name="sphere-bvh",
    version=version,
    author="Your Name",
    author_email="your.email@example.com",
    description="Bounding volume hierarchy over spheres with midpoint splitting",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/sphere-bvh",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Visualization",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.8",

    # Зависимости
    install_requires=[
        "numpy>=1.21.0",
        "psutil>=5.8.0",
    ],

    # Опциональные зависимости
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
    },

    # Точка входа для CLI
    entry_points={
        "console_scripts": [
            "sphere-bvh=main:main",
        ],
    },

    include_package_data=True,
    zip_safe=False,
)
