"""
Sign In With Farcaster API router - delegates to the SIWF controller.
"""

from src.api.controller.siwf.siwf_controller import router as siwf_controller_router

# Re-export the controller router
router = siwf_controller_router

__all__ = ['router']
