from sqlblock.utils import hex_to_bytes, quantity_to_int


class LogParser:
    @staticmethod
    def parse_raw(raw_log: dict) -> dict:
        return {
            'index': quantity_to_int(raw_log['logIndex'] if 'logIndex' in raw_log else raw_log['index']),
            'address': str(raw_log['address']),
            'topics': tuple(hex_to_bytes(topic) for topic in raw_log.get('topics', [])),
            'data': hex_to_bytes(raw_log.get('data')),
        }
