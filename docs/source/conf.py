import logging
import portfolio_live
import importlib.metadata

# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = "portfolio-live"
copyright = "2026, portfolio-live contributors"
author = "portfolio-live contributors"
release = importlib.metadata.version("portfolio-live")

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.intersphinx",
    "autoapi.extension",
    "sphinx_rtd_theme",
]

templates_path = ["_templates"]
exclude_patterns = []

default_role = "py:obj"

autoapi_dirs = ["../../src/portfolio_live"]
autoapi_generate_api_docs = True
autoapi_keep_files = True
autoapi_python_class_content = "both"

# -- Options for HTML output -------------------------------------------------

html_theme = "sphinx_rtd_theme"

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "fastapi": ("https://fastapi.tiangolo.com", None),
    "anyio": ("https://anyio.readthedocs.io/en/stable/", None),
    "pydantic": ("https://docs.pydantic.dev/latest/", None),
}

# Symbols re-exported from the top-level package would otherwise be
# documented twice. Only the fully qualified name in the defining module
# is kept.

skipper_log = logging.getLogger("skipper")
skipper_log.addHandler(logging.FileHandler("./skipper.log", mode="w"))
skipper_log.setLevel(logging.DEBUG)

convenience_modules = {
    "portfolio_live": portfolio_live.__all__,
}

skipper_log.info("Convenience modules: %s.", convenience_modules)


def skip_public_api(app, what, name: str, obj, skip, options):
    """Skip documenting members that are re-exported from the public API."""
    unqual = name.split(".")[-1]
    for conv, all in convenience_modules.items():
        if unqual in all and name == f"{conv}.{unqual}":
            skipper_log.warning(f"skipping {name}")
            skip = True
    return skip


def setup(sphinx):
    sphinx.connect("autoapi-skip-member", skip_public_api)
