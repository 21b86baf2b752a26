from importlib import resources
from string import Template


def load_stylesheet_template() -> Template:
    with resources.files(__package__).joinpath("data/railroad.css").open("r", encoding="utf-8") as fh:
        return Template(fh.read())
