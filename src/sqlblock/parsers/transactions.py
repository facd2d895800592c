from sqlblock.utils import hex_to_bytes, quantity_to_int, quantity_to_str


class TransactionParser:
    @staticmethod
    def parse_raw(raw_tx: dict) -> dict:
        index = raw_tx['transactionIndex'] if 'transactionIndex' in raw_tx else raw_tx['index']
        return {
            'index': quantity_to_int(index),
            'hash': hex_to_bytes(raw_tx['hash']),
            'from_address': str(raw_tx.get('from') or ''),
            'to_address': str(raw_tx['to']) if raw_tx.get('to') else None,
            'value': quantity_to_str(raw_tx.get('value', 0)),
            'gas_used': quantity_to_str(raw_tx.get('gasUsed', 0)),
            'input': hex_to_bytes(raw_tx.get('input')),
            'status': quantity_to_int(raw_tx.get('status', 1)),
        }
