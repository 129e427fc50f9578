import os
import sys

sys.path.insert(0, os.path.abspath("../src"))  # adjust path as needed
import bigleaf_flux  # Import the package to be documented

project = "bigleaf-flux"
copyright = "2025, Lawrence Hipps, Martin Schroeder, Paul Inkenbrandt"
author = "Lawrence Hipps, Martin Schroeder, Paul Inkenbrandt"
release = bigleaf_flux.__version__

# -- General configuration ---------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#general-configuration

extensions = [
    "sphinx.ext.autodoc",
    "numpydoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.viewcode",
    "sphinx.ext.intersphinx",
    "sphinx.ext.mathjax",
    "myst_parser",
]
autosummary_generate = True  # Automatically generate .rst files for modules
autosummary_imported_members = True
numpydoc_show_class_members = False
intersphinx_mapping = {
    "numpy": ("https://numpy.org/doc/stable/", None),
    "pandas": ("https://pandas.pydata.org/docs/", None),
}
templates_path = ["_templates"]
exclude_patterns = [
    "_build/*",
    "Thumbs.db",
    ".DS_Store",
    "docs/_build/*",
    "tests/*",
]


# -- Options for HTML output -------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#options-for-html-output

html_theme = "sphinx_rtd_theme"
html_static_path = ["_static"]
