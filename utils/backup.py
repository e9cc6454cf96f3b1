# utils/backup.py
import csv
import os
from datetime import datetime

from utils.serializers import serialize_eligibility


def export_roster_csv(reports, backup_dir='backups'):
    """Write one row per eligibility report; returns the file name inside backup_dir."""
    os.makedirs(backup_dir, exist_ok=True)
    timestamp = datetime.utcnow().strftime('%Y%m%d%H%M%S')
    filename = f'roster_export_{timestamp}.csv'
    path = os.path.join(backup_dir, filename)

    with open(path, mode='w', newline='', encoding='utf-8') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(['Student ID', 'Full Name', 'Age', 'Track', 'Current Rank', 'Next Rank',
                         'Attendance', 'Required', 'Missing', 'Status'])

        for report in reports:
            row = serialize_eligibility(report)
            writer.writerow([
                row['student_id'],
                row['name'],
                row['age'],
                row['track'],
                row['current_rank']['name'],
                row['next_rank']['name'] if row['next_rank'] else '',
                row['attendance'],
                row['required'] if row['required'] is not None else '',
                row['missing'] if row['missing'] is not None else '',
                row['status'],
            ])

    return filename
