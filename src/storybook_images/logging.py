import logging

logger = logging.getLogger("storybook_images")
