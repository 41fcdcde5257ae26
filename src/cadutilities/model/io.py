"""
Input/Output Manager (HDF5)
Handles saving and loading a drawing Database to .h5 files.
"""
import json
import logging
from dataclasses import asdict
from importlib.metadata import version, PackageNotFoundError

import h5py
import numpy as np

from cadutilities.config import DrawingDefaults, LARGE_ATTRIBUTE_LIMIT
from cadutilities.model.database import Database, ObjectId
from cadutilities.model.entities import DBObject

# Get module logger
logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("cadutilities")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"


class DrawingIO:

    @staticmethod
    def save_database(database: Database, filepath: str) -> None:
        logger.info(f"Saving drawing to: {filepath}")
        try:
            with h5py.File(filepath, "w") as f:
                f.attrs["version"] = APP_VERSION
                f.attrs["handseed"] = database.handseed

                # --- 1. SAVE DEFAULTS ---
                grp_defaults = f.create_group("defaults")
                for key, val in asdict(database.defaults).items():
                    grp_defaults.attrs[key] = val

                # --- 2. SAVE OBJECTS ---
                # Erased objects are purged on save
                records = []
                for object_id in database.object_ids():
                    obj = database.get(object_id)
                    record = obj.to_dict()
                    record["handle"] = object_id.handle
                    records.append(record)

                grp_objects = f.create_group("objects")
                grp_objects.attrs["count"] = len(records)
                objects_json = json.dumps(records)

                # Use dataset if data exceeds HDF5 attribute size limit (64KB)
                if len(objects_json) > LARGE_ATTRIBUTE_LIMIT:
                    logger.info(f"Object table is large ({len(objects_json)} bytes), using dataset")
                    grp_objects.create_dataset("objects", data=np.void(objects_json.encode('utf-8')))
                else:
                    grp_objects.attrs["objects_json"] = objects_json

            logger.info(f"Drawing saved to: {filepath} ({len(records)} objects)")

        except Exception as e:
            logger.exception(f"Failed to save drawing: {e}")
            raise

    @staticmethod
    def load_database(filepath: str) -> Database:
        logger.info(f"Loading drawing from: {filepath}")
        if not h5py.is_hdf5(filepath):
            msg = f"File '{filepath}' is not a valid HDF5 file."
            logger.error(msg)
            raise ValueError(msg)

        try:
            with h5py.File(filepath, "r") as f:
                # --- 1. LOAD DEFAULTS ---
                defaults = DrawingDefaults()
                if "defaults" in f:
                    loaded_values = {}
                    for key, val in f["defaults"].attrs.items():
                        # HDF5 often saves as numpy types, convert to native python
                        if isinstance(val, bytes):
                            val = val.decode('utf-8')
                        elif hasattr(val, 'item'):
                            val = val.item()
                        loaded_values[key] = val
                    defaults = DrawingDefaults(**loaded_values)

                database = Database(defaults=defaults)

                # --- 2. LOAD OBJECTS ---
                objects_json = None
                if "objects" in f:
                    grp_objects = f["objects"]
                    if "objects" in grp_objects:
                        # Large data stored as dataset
                        objects_json = bytes(grp_objects["objects"][()]).decode('utf-8')
                    elif "objects_json" in grp_objects.attrs:
                        # Small data stored as attribute
                        objects_json = grp_objects.attrs["objects_json"]

                if objects_json:
                    for record in json.loads(objects_json):
                        obj = DBObject.from_dict(record)
                        database.restore(obj, ObjectId(int(record["handle"])))
                    logger.debug(f"Loaded {len(database.entity_ids())} entities.")
                else:
                    logger.warning(f"No objects found in '{filepath}'.")

                # Handles of objects erased before the save stay retired
                if "handseed" in f.attrs:
                    database.handseed = int(f.attrs["handseed"])

            logger.info(f"Drawing loaded from: {filepath}")
            return database

        except Exception as e:
            logger.exception(f"Failed to load drawing: {e}")
            raise
