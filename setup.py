from setuptools import setup, find_packages

setup(
    name="hybrid_smoother",
    version="0.1.0",
    description="Incremental smoother for hybrid discrete/continuous factor graphs",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "attrs",
        "gtsam",
        "pyyaml",
    ],
    extras_require={"test": ["pytest"]},
)
