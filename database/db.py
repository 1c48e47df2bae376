import logging
import sqlite3

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, db_path='timenow.db'):
        """Initialize database connection"""
        self.db_path = db_path
        self.connection = None
        self.cursor = None

    def connect(self):
        """Connect to the SQLite database"""
        try:
            self.connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self.cursor = self.connection.cursor()
            logger.debug(f"Connected to database at {self.db_path}")
            return True
        except sqlite3.Error as e:
            logger.error(f"Error connecting to database: {e}")
            return False

    def close(self):
        """Close database connection"""
        if self.connection:
            self.connection.close()
            self.connection = None
            self.cursor = None
            logger.debug("Database connection closed")

    def create_tables(self):
        """Create the IP range table and its lookup index if they don't exist"""
        try:
            # Addresses are 32-char hex keys, see geoip.ip_to_key
            self.cursor.execute('''
            CREATE TABLE IF NOT EXISTS ip_ranges (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                range_start TEXT NOT NULL,
                range_end TEXT NOT NULL,
                timezone TEXT NOT NULL,
                UNIQUE(range_start, range_end)
            )
            ''')

            self.cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_ip_ranges_start
            ON ip_ranges (range_start)
            ''')

            self.connection.commit()
            logger.info("IP range table created successfully")
            return True
        except sqlite3.Error as e:
            logger.error(f"Error creating tables: {e}")
            return False

    def insert_ip_range(self, range_start, range_end, timezone):
        """Insert a single IP range into the table"""
        try:
            self.cursor.execute('''
            INSERT OR REPLACE INTO ip_ranges
            (range_start, range_end, timezone)
            VALUES (?, ?, ?)
            ''', (range_start, range_end, timezone))
            self.connection.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Error inserting IP range: {e}")
            return False

    def insert_many_ip_ranges(self, ranges):
        """Insert multiple (range_start, range_end, timezone) records at once"""
        try:
            self.cursor.executemany('''
            INSERT OR REPLACE INTO ip_ranges
            (range_start, range_end, timezone)
            VALUES (?, ?, ?)
            ''', ranges)
            self.connection.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Error inserting bulk IP ranges: {e}")
            return False

    def lookup_timezone(self, ip_key):
        """Return the timezone of the range containing ip_key, or None

        When ranges overlap, the one with the greatest start wins.
        """
        try:
            self.cursor.execute('''
            SELECT timezone FROM ip_ranges
            WHERE range_start <= ? AND range_end >= ?
            ORDER BY range_start DESC
            LIMIT 1
            ''', (ip_key, ip_key))
            row = self.cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            logger.error(f"Error looking up IP range: {e}")
            return None

    def query_data(self, query, params=None):
        """Execute a custom query and return the results"""
        try:
            if params:
                self.cursor.execute(query, params)
            else:
                self.cursor.execute(query)
            return self.cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error executing query: {e}")
            return None

    def count_ranges_by_timezone(self):
        """Return (timezone, range count) pairs ordered by timezone"""
        return self.query_data('''
            SELECT timezone, COUNT(*) FROM ip_ranges
            GROUP BY timezone
            ORDER BY timezone
        ''')
