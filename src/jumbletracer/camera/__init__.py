"""Camera module for view and ray generation.

Components:
    thin_lens: Perspective camera with depth of field and sampling modes

Ray generation uses normalized image coordinates:
    pct_x in [0, 1]: left to right across image
    pct_y in [0, 1]: bottom to top across image
"""

from .thin_lens import (
    MAX_RAY_BATCH,
    SampleType,
    ThinLensCamera,
    gen_rays,
    get_camera_info,
    get_pixel_footprint,
    get_ray,
    get_ray_exact,
    setup_camera,
)

__all__ = [
    "MAX_RAY_BATCH",
    "SampleType",
    "ThinLensCamera",
    "setup_camera",
    "get_ray",
    "get_ray_exact",
    "gen_rays",
    "get_camera_info",
    "get_pixel_footprint",
]
