"""
Generate sample import workbooks for the asset tracker.
"""
from pathlib import Path
from typing import List

import pandas as pd


def generate_sample_data() -> pd.DataFrame:
    """Well-formed import sheet with the standard headers"""
    data = {
        'Computer No.': [
            'JTAPNB-000001',
            'JTAPNB-000002',
            'JTAPNB-000003',
            'JTAPNB-000004',
            'JTAPNB-000005'
        ],
        'Serial No.': [
            'PF00001',
            'PF00002',
            'PF00003',
            'PF00004',
            'PF00005'
        ],
        'Brand': ['Dell', 'Lenovo', 'HP', 'Asus', 'Lenovo'],
        'Model': [
            'Latitude 5440',
            'ThinkPad T14',
            'EliteBook 840',
            'ExpertBook B9',
            'ThinkPad X1'
        ],
        'Owner': ['-', 'Somchai P.', '-', '-', 'Anong K.'],
        'Emp ID': ['-', 'E1001', '-', '-', 'E1002'],
        'Dept': ['-', 'IT', '-', '-', 'OMD'],
        'Status': ['In Stock', 'In Use', 'In Stock', 'Broken', 'Assigned'],
        'Purchase Date': [
            '2018-04-01',
            '2022-06-15',
            '2019-01-10',
            '2021-09-30',
            '2023-02-20'
        ],
        'Warranty': [
            '2021-04-01',
            '2025-06-15',
            '2022-01-10',
            '2024-09-30',
            '2026-02-20'
        ],
        'Tags': ['Spare', 'Developer', '-', '-', 'High Performance, Developer'],
        'HDD/SSD': ['256 GB', '512 GB', '256 GB', '512 GB', '1 TB'],
        'RAM': ['8 GB (DDR4)', '16 GB (DDR4)', '8 GB (DDR4)', '16 GB (DDR5)', '32 GB (DDR5)'],
        'CPU': ['i5-8365U', 'Ryzen 7 PRO', 'i5-8265U', 'i7-1165G7', 'i7-1365U'],
    }

    return pd.DataFrame(data)


def generate_invalid_rows_sample() -> pd.DataFrame:
    """Sheet with a missing serial number and an in-file duplicate"""
    data = {
        'Computer No.': [
            'JTAPNB-000101',
            'JTAPNB-000102',
            'JTAPNB-000101'
        ],
        'Serial No.': [
            'PF00101',
            None,
            'PF00101'
        ],
        'Status': [
            'In Stock',
            'In Stock',
            'In Stock'
        ]
    }

    return pd.DataFrame(data)


def write_samples(data_dir: Path) -> List[Path]:
    """Write every sample sheet as an .xlsx file into *data_dir*."""
    data_dir.mkdir(parents=True, exist_ok=True)

    valid_file = data_dir / 'sample_assets.xlsx'
    generate_sample_data().to_excel(valid_file, index=False)

    invalid_file = data_dir / 'sample_invalid_rows.xlsx'
    generate_invalid_rows_sample().to_excel(invalid_file, index=False)

    return [valid_file, invalid_file]


if __name__ == '__main__':
    created = write_samples(Path.cwd() / 'data')
    for path in created:
        print(f"Created: {path}")
