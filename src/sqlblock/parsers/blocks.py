from sqlblock.utils import hex_to_bytes, quantity_to_int, quantity_to_str, unix_to_utc


class BlockParser:
    @staticmethod
    def parse_raw(raw_block: dict) -> dict:
        height = quantity_to_int(raw_block['number'] if 'number' in raw_block else raw_block['height'])
        sequence = raw_block.get('sequence')
        return {
            'height': height,
            'hash': hex_to_bytes(raw_block['hash']),
            'parent_hash': hex_to_bytes(raw_block['parentHash']),
            'timestamp': unix_to_utc(raw_block['timestamp']),
            'gas_limit': quantity_to_str(raw_block['gasLimit']),
            'gas_used': quantity_to_str(raw_block['gasUsed']),
            # The ingestion order defaults to the chain order
            'sequence': quantity_to_int(sequence) if sequence is not None else height,
        }
