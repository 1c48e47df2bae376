import logging
import os
import glob
import time
from datetime import datetime
from typing import List, Tuple
import polars as pl
from config import settings, setup_logging
from database.db import Database
from geoip import safe_ip_to_key
from timezones import get_zone_names

# Set up logging
setup_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


class IpRangeETL:
    """ETL pipeline loading IP range to timezone files into SQLite"""

    def __init__(self, data_dir: str = "ip_data", batch_size: int = 10000, db_path: str = "timenow.db"):
        """Initialize the ETL pipeline

        Args:
            data_dir: Directory containing IP range CSV files
            batch_size: Number of records to process in each batch
            db_path: Path to the SQLite database
        """
        self.data_dir = data_dir
        self.batch_size = batch_size
        self.db_path = db_path
        self.db = Database(db_path)

        # Statistics
        self.total_records_inserted = 0
        self.total_files_processed = 0
        self.failed_files = []

    def parse_range_file(self, file_path: str) -> int:
        """Parse an IP range file in batches and insert each batch immediately

        Args:
            file_path: Path to a CSV file with a start_ip,end_ip,timezone header

        Returns:
            Number of records successfully inserted, or 0 if parsing fails
        """
        try:
            logger.info(f"Processing file: {file_path} in batches of {self.batch_size}")

            total_records_processed = 0
            batch_count = 0

            batch_reader = pl.read_csv_batched(
                file_path,
                has_header=True,
                columns=['start_ip', 'end_ip', 'timezone'],
                schema_overrides={
                    'start_ip': pl.Utf8,
                    'end_ip': pl.Utf8,
                    'timezone': pl.Utf8
                },
                batch_size=self.batch_size,
            )

            batches = batch_reader.next_batches(1)
            while batches:
                for batch_df in batches:
                    batch_count += 1

                    validated_batch = self.validate_data(batch_df)

                    if len(validated_batch) > 0:
                        batch_tuples = list(validated_batch.iter_rows())
                        total_records_processed += self.process_batch(batch_tuples)

                        if batch_count % 10 == 0:
                            logger.info(f"Processed {batch_count} batches, {total_records_processed} records so far...")

                batches = batch_reader.next_batches(1)

            logger.info(f"Successfully processed {file_path}: {total_records_processed} records in {batch_count} batches")
            return total_records_processed

        except Exception as e:
            logger.error(f"Failed to process {file_path} in batches: {str(e)}")
            self.failed_files.append(file_path)
            return 0

    def validate_data(self, df: pl.DataFrame) -> pl.DataFrame:
        """Validate IP ranges and convert them to range keys

        Args:
            df: Polars DataFrame with start_ip, end_ip and timezone columns

        Returns:
            DataFrame with range_start, range_end and timezone columns
        """
        original_count = len(df)

        df = df.with_columns([
            pl.col('start_ip').str.strip_chars(),
            pl.col('end_ip').str.strip_chars(),
            pl.col('timezone').str.strip_chars(),
        ])

        # An empty end address means a single-address range
        df = df.with_columns(
            pl.when(pl.col('end_ip').is_null() | (pl.col('end_ip') == ''))
            .then(pl.col('start_ip'))
            .otherwise(pl.col('end_ip'))
            .alias('end_ip')
        )

        df = df.with_columns([
            pl.col('start_ip').map_elements(safe_ip_to_key, return_dtype=pl.Utf8).alias('range_start'),
            pl.col('end_ip').map_elements(safe_ip_to_key, return_dtype=pl.Utf8).alias('range_end'),
        ])

        df = df.filter(
            pl.col('range_start').is_not_null()
            & pl.col('range_end').is_not_null()
            & pl.col('timezone').is_in(list(get_zone_names()))
            & (pl.col('range_start') <= pl.col('range_end'))
        )

        # Remove duplicates based on the range bounds
        df = df.unique(subset=['range_start', 'range_end'], keep='first', maintain_order=True)
        df = df.select(['range_start', 'range_end', 'timezone'])

        cleaned_count = len(df)
        if cleaned_count != original_count:
            logger.info(f"Validation: {original_count} -> {cleaned_count} records")

        return df

    def process_batch(self, batch_data: List[Tuple]) -> int:
        """Insert a batch of (range_start, range_end, timezone) tuples

        Returns:
            Number of records successfully inserted
        """
        if self.db.insert_many_ip_ranges(batch_data):
            logger.debug(f"Successfully inserted batch of {len(batch_data)} records")
            return len(batch_data)

        logger.error(f"Failed to insert batch of {len(batch_data)} records")
        return 0

    def get_data_files(self) -> List[str]:
        """Get list of all IP range files"""
        pattern = os.path.join(self.data_dir, "*.csv")
        files = sorted(glob.glob(pattern))
        logger.info(f"Found {len(files)} IP range files")
        return files

    def run_etl(self):
        """Run the complete ETL process"""
        start_time = time.time()
        logger.info("=" * 50)
        logger.info("Starting IP Range ETL Process")
        logger.info(f"Start time: {datetime.now()}")
        logger.info("=" * 50)

        try:
            if not self.db.connect():
                logger.error("Failed to connect to database")
                return

            self.db.create_tables()

            files = self.get_data_files()

            if not files:
                logger.warning("No data files found to process")
                return

            for file_path in files:
                records_inserted = self.parse_range_file(file_path)

                if records_inserted > 0:
                    self.total_records_inserted += records_inserted
                    self.total_files_processed += 1
                    logger.info(f"File completed: {records_inserted} records inserted")
                else:
                    logger.warning(f"No records inserted for file: {os.path.basename(file_path)}")

            coverage = self.db.count_ranges_by_timezone()
            if coverage:
                logger.info(f"Ranges now cover {len(coverage)} timezones")

        except Exception as e:
            logger.error(f"ETL process failed: {str(e)}")

        finally:
            self.db.close()

            duration = time.time() - start_time

            logger.info("=" * 50)
            logger.info("ETL Process Complete")
            logger.info(f"End time: {datetime.now()}")
            logger.info(f"Duration: {duration:.2f} seconds")
            logger.info(f"Files processed: {self.total_files_processed}")
            logger.info(f"Total records inserted: {self.total_records_inserted}")

            if self.failed_files:
                logger.warning(f"Failed files: {len(self.failed_files)}")
                for failed_file in self.failed_files:
                    logger.warning(f"  - {failed_file}")

            logger.info("=" * 50)


def main():
    """Main function to run the ETL process"""
    etl = IpRangeETL(
        data_dir=settings.DATA_DIR,
        batch_size=settings.BATCH_SIZE,
        db_path=settings.DB_PATH
    )

    etl.run_etl()


if __name__ == "__main__":
    main()
