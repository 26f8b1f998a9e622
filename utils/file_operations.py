"""
File operation utilities for the stereo processing tools.

This module provides path management for the set_*/pair_* dataset layout and
structured saving of arrays, images, JSON documents and tabular summaries.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Sequence

import cv2
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class PathManager:
    """Manages paths and directory operations for stereo datasets."""

    @staticmethod
    def ensure_directory_exists(path: Path, clear_if_exists: bool = False) -> Path:
        """
        Ensure directory exists, optionally clearing it if it already exists.

        Args:
            path: Directory path to create
            clear_if_exists: Whether to clear directory if it already exists

        Returns:
            Path: The created/validated directory path
        """
        if clear_if_exists and path.exists():
            shutil.rmtree(path)

        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {path}")

        return path

    @staticmethod
    def create_output_structure(base_path: Path, set_name: str, pair_name: str) -> Path:
        """
        Create the output directory of one stereo pair.

        Args:
            base_path: Base output path
            set_name: Name of the image set
            pair_name: Name of the image pair

        Returns:
            Path: Output directory of the pair
        """
        return PathManager.ensure_directory_exists(base_path / set_name / pair_name)

    @staticmethod
    def validate_input_structure(input_path: Path) -> List[Path]:
        """
        Validate and return list of set directories in input path.

        Args:
            input_path: Input directory path

        Returns:
            List[Path]: List of valid set directories

        Raises:
            ValueError: If no valid set directories found
        """
        if not input_path.exists():
            raise ValueError(f"Input path does not exist: {input_path}")

        set_folders = [p for p in input_path.glob('set_*') if p.is_dir()]

        if not set_folders:
            raise ValueError(f"No 'set_*' folders found in {input_path}")

        logger.info(f"Found {len(set_folders)} set folders in {input_path}")
        return sorted(set_folders)

    @staticmethod
    def get_pair_folders(set_folder: Path) -> List[Path]:
        """Sorted pair directories of a set folder."""
        return sorted(p for p in set_folder.iterdir() if p.is_dir())


class DataSaver:
    """Handles saving of various data types in standard formats."""

    @staticmethod
    def save_numpy_array(
        array: np.ndarray,
        output_path: Path,
        filename: str,
        format_type: str = 'npy'
    ) -> bool:
        """
        Save numpy array in specified format.

        Args:
            array: Numpy array to save
            output_path: Output directory
            filename: Output filename (without extension)
            format_type: Format ('npy', 'csv')

        Returns:
            bool: True if successful
        """
        try:
            output_path.mkdir(parents=True, exist_ok=True)

            if format_type == 'npy':
                full_path = output_path / f"{filename}.npy"
                np.save(full_path, array)
            elif format_type == 'csv':
                full_path = output_path / f"{filename}.csv"
                np.savetxt(full_path, array, delimiter=',')
            else:
                raise ValueError(f"Unsupported format: {format_type}")

            logger.debug(f"Saved array to {full_path}")
            return True

        except (OSError, ValueError) as e:
            logger.error(f"Failed to save array {filename}: {e}")
            return False

    @staticmethod
    def save_image(image: np.ndarray, output_path: Path, filename: str) -> bool:
        """
        Save an image as PNG.

        Args:
            image: (H, W) or (H, W, 3) BGR image
            output_path: Output directory
            filename: Output filename (without extension)

        Returns:
            bool: True if successful
        """
        output_path.mkdir(parents=True, exist_ok=True)
        full_path = output_path / f"{filename}.png"

        if not cv2.imwrite(str(full_path), image):
            logger.error(f"Failed to save image {full_path}")
            return False

        logger.debug(f"Saved image to {full_path}")
        return True

    @staticmethod
    def save_json_data(
        data: Dict[str, Any],
        output_path: Path,
        filename: str,
        indent: int = 2
    ) -> bool:
        """
        Save dictionary data as JSON.

        Args:
            data: Data to save
            output_path: Output directory
            filename: Output filename (without extension)
            indent: JSON indentation

        Returns:
            bool: True if successful
        """
        try:
            output_path.mkdir(parents=True, exist_ok=True)
            full_path = output_path / f"{filename}.json"

            with open(full_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=indent)

            logger.debug(f"Saved JSON to {full_path}")
            return True

        except (OSError, TypeError) as e:
            logger.error(f"Failed to save JSON {filename}: {e}")
            return False

    @staticmethod
    def save_table(rows: Sequence[Dict[str, Any]], output_path: Path, filename: str) -> bool:
        """
        Save a list of records as CSV.

        Args:
            rows: One dictionary per row
            output_path: Output directory
            filename: Output filename (without extension)

        Returns:
            bool: True if successful
        """
        try:
            output_path.mkdir(parents=True, exist_ok=True)
            full_path = output_path / f"{filename}.csv"

            df = pd.DataFrame(list(rows))
            df.to_csv(full_path, index=False)

            logger.info(f"Saved {len(df)} rows to {full_path}")
            return True

        except OSError as e:
            logger.error(f"Failed to save table {filename}: {e}")
            return False


def load_json_data(path: Path) -> Dict[str, Any]:
    """
    Load a JSON document.

    Raises:
        ValueError: If the file is missing or not valid JSON
    """
    if not path.exists():
        raise ValueError(f"File does not exist: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
