"""
render.py — render the listing website (index.html, app.js) with Jinja2.

Templates are looked up in the listing's Website directory first and fall
back to the defaults shipped in vpm_listing/templates. Templates receive:

    listingInfo  — listing name/url/description/infoLink/author/banner
    packages     — latest version of every package, formatted for display
"""

import logging
import os
import shutil

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

from vpm_listing_core.assemble import format_package_view, latest_view

logger = logging.getLogger(__name__)

TEMPLATE_FILES = ("index.html", "app.js")


def listing_info(source):
    info_link = source.info_link
    return {
        "name": source.name,
        "url": source.url,
        "description": source.description,
        "infoLink": {
            "text": info_link.text if info_link else None,
            "url": info_link.url if info_link else None,
        },
        "author": {
            "name": source.author.name,
            "url": source.author.url,
            "email": source.author.email,
        },
        "bannerImage": bool(source.banner_url),
        "bannerImageUrl": source.banner_url,
    }


def make_environment(website_dir=None):
    loaders = []
    if website_dir and os.path.isdir(website_dir):
        loaders.append(FileSystemLoader(website_dir))
    loaders.append(PackageLoader("vpm_listing", "templates"))
    return Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(["html"]),
        keep_trailing_newline=True,
    )


def copy_static_files(website_dir, output_dir):
    """Copy website files into output_dir without overwriting anything."""
    copied = 0
    for root, _dirs, files in os.walk(website_dir):
        rel = os.path.relpath(root, website_dir)
        for name in files:
            if rel == "." and name in TEMPLATE_FILES:
                continue
            dest_dir = os.path.normpath(os.path.join(output_dir, rel))
            dest = os.path.join(dest_dir, name)
            if os.path.exists(dest):
                continue
            os.makedirs(dest_dir, exist_ok=True)
            shutil.copy2(os.path.join(root, name), dest)
            copied += 1
    return copied


def render_site(source, index, website_dir, output_dir):
    """Render the website templates for a reconciled index.

    Returns:
        List of written file paths.
    """
    env = make_environment(website_dir)
    context = {
        "listingInfo": listing_info(source),
        "packages": [format_package_view(d) for d in latest_view(index.descriptors)],
    }
    logger.debug("Rendering %d package(s)", len(context["packages"]))

    os.makedirs(output_dir, exist_ok=True)
    written = []
    for name in TEMPLATE_FILES:
        rendered = env.get_template(name).render(**context)
        path = os.path.join(output_dir, name)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(rendered)
        written.append(path)

    if website_dir and os.path.isdir(website_dir):
        copied = copy_static_files(website_dir, output_dir)
        if copied:
            logger.info("Copied %d website file(s) to %s", copied, output_dir)
    return written
