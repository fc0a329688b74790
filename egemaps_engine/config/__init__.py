"""Engine settings and the eGeMAPSv02 parameter table"""

from egemaps_engine.config.config_loader import Config, config
from egemaps_engine.config.recipe import Recipe, load_recipe, DEFAULT_RECIPE_PATH

__all__ = ['Config', 'config', 'Recipe', 'load_recipe', 'DEFAULT_RECIPE_PATH']
