"""Setup script for icalswitch, the ICS-driven busy/free switch."""

from pathlib import Path

from setuptools import find_packages, setup
from setuptools.command.develop import develop
from setuptools.command.install import install

HERE = Path(__file__).parent
CONFIG_DIR = Path.home() / ".config" / "icalswitch"


def ensure_config_dir():
    """Create ~/.config/icalswitch and print a starter config when none exists."""
    try:
        CONFIG_DIR.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as e:
        print(f"Warning: could not create {CONFIG_DIR}: {e}")
        return

    if (CONFIG_DIR / "config.yaml").exists():
        return
    print(f"\nicalswitch installed. Create {CONFIG_DIR / 'config.yaml'} with at least:")
    print("    ics_url: https://example.com/calendar.ics")
    print("then run 'icalswitch --once' to check the feed.\n")


class ConfigDirMixin:
    """Run ensure_config_dir() after the wrapped setuptools command."""

    def run(self):
        super().run()
        ensure_config_dir()


class InstallWithConfigDir(ConfigDirMixin, install):
    pass


class DevelopWithConfigDir(ConfigDirMixin, develop):
    pass


def read_requirements(path):
    """Split requirements.txt into (runtime, test) lists; pytest* lines are test-only."""
    runtime, test = [], []
    if not path.exists():
        return runtime, test
    for raw in path.read_text().splitlines():
        req = raw.strip()
        if not req or req.startswith("#"):
            continue
        (test if "pytest" in req else runtime).append(req)
    return runtime, test


install_requires, test_requires = read_requirements(HERE / "requirements.txt")

setup(
    name="icalswitch",
    version="0.3.0",
    description="Follow an ICS calendar feed and drive a busy/free switch at exact event boundaries",
    author="icalswitch contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=install_requires,
    extras_require={"dev": test_requires},
    python_requires=">=3.11",
    classifiers=[
        "Environment :: Console",
        "Framework :: AsyncIO",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Home Automation",
        "Topic :: Office/Business :: Scheduling",
    ],
    entry_points={"console_scripts": ["icalswitch=icalswitch.__main__:main"]},
    cmdclass={"install": InstallWithConfigDir, "develop": DevelopWithConfigDir},
    zip_safe=False,
)
