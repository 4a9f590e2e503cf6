"""hostbasics: host hardware and public network identity report."""

__version__ = "v0.2.0"
REPO_URL = "https://github.com/oneclickvirt/basics"
