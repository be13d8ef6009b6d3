# geocompose/config/defaults.py
"""Default configuration values for raster composition."""

from pathlib import Path

# Project path
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / 'data'
LOGS_DIR = PROJECT_ROOT / 'logs'

PATHS = {
    'project_root': str(PROJECT_ROOT),
    'data_dir': str(DATA_DIR),
    'logs_dir': str(LOGS_DIR),
    'output_dir': str(PROJECT_ROOT / 'outputs'),
}

# Raster processing - resampling, pyramid selection and GDAL tuning
RASTER_PROCESSING = {
    'max_raster_dimension': 3072,  # largest working raster edge, in pixels
    'trivial_area_ratio_percent': 1.0,  # below this the pyramid is skipped
    'gdal_cache_mb': 512,
    'warp_memory_limit_mb': 256,
    'gdal_config_options': {
        'GDAL_PAM_ENABLED': 'NO',
    },
    'resampling_methods': {
        'continuous': 'bilinear',
        'categorical': 'nearest',
        'mask': 'nearest',
    },
    'read_resampling': 'bilinear',
}

# Elevation-specific behaviour
ELEVATION = {
    'nodata_sentinels': [-32767, -32768],  # min values treated as implicit nodata
    'default_nodata': -32768,
    'default_data_type': 'Int16',
    'byte_order': 'big',
}

# Composition defaults
COMPOSITION = {
    'default_pixel_format': 'image',
    'default_image_format': 'image/png',
    'jpeg_quality': 85,
}

# Reader configuration
READERS = {
    'enabled': ['gdal', 'bil'],
    'gdal': {
        'open_options': {},
        'quick_reading': False,
    },
    'bil': {
        'default_data_type': 'Int16',
        'byte_order': 'little',
    },
}

LOGGING = {
    'level': 'INFO',
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'file': str(LOGS_DIR / 'geocompose.log'),
    'max_file_size': 10 * 1024 * 1024,
    'backup_count': 5,
}
