from pathlib import Path

from setuptools import find_namespace_packages, setup

ROOT = Path(__file__).parent

# Read requirements (ignore comments and recursive -r entries)
req_path = ROOT / "requirements.txt"
requirements = []
if req_path.exists():
    for line in req_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("-r"):
            continue
        requirements.append(line)

readme = (ROOT / "README.md").read_text(encoding="utf-8") if (ROOT / "README.md").exists() else ""

setup(
    name="greenhouse-control",
    version="1.0.0",
    description="Greenhouse actuator command dispatch and state reconciliation over ThingsBoard",
    long_description=readme,
    long_description_content_type="text/markdown",
    # infrastructure/ is a namespace package (no __init__.py at its root)
    packages=find_namespace_packages(include=("app", "app.*", "infrastructure", "infrastructure.*")),
    py_modules=["greenhouse_app"],
    python_requires=">=3.10,<4",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-flask>=1.2.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-flask>=1.2.0",
            "pytest-cov>=4.1.0",
            "black>=23.7.0",
            "flake8>=6.0.0",
            "mypy>=1.5.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Home Automation",
        "Topic :: Scientific/Engineering :: Agriculture",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    keywords="iot agriculture greenhouse thingsboard rpc automation",
    entry_points={
        "console_scripts": [
            "greenhouse-backend=greenhouse_app:main",
        ]
    },
)
