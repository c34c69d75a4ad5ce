# -*- coding: utf-8 -*-
"""sd-automate: batch txt2img runner for Stable Diffusion WebUI."""

__version__ = "1.0.0"
