"""ttrplobby: find a tabletop RPG table now or later."""

__version__ = "0.1.0"
