import copy
import json

import pytest

from aleo_indexer.definitions import load_definitions
from aleo_indexer.definitions import parse_definitions
from aleo_indexer.definitions import parse_semantic_type
from aleo_indexer.domain import PrimitiveKind
from aleo_indexer.domain import TypeKind
from aleo_indexer.exceptions import ConfigurationError

from conftest import DEFINITIONS
from conftest import PROGRAM_ID


def definitions():
    return copy.deepcopy(DEFINITIONS)


class TestParseDefinitions:

    def test_parse(self):
        programs = parse_definitions(definitions())
        assert len(programs) == 1
        program = programs[0]
        assert program.program_id == PROGRAM_ID
        transfer = program.find_function('transfer_public')
        assert transfer.table_name == 'public_transfers'
        assert [field.name for field in transfer.inputs] == ['r0', 'r1']
        assert transfer.outputs[0].parsed_path == 'arguments[0]'
        assert transfer.extract == {
            'fee_payer': 'transaction.fee.transition.program'
        }
        trigger = transfer.triggers[0]
        assert trigger.program_id == PROGRAM_ID
        assert trigger.mapping_name == 'supplies'
        assert trigger.key_type.primitive is PrimitiveKind.FIELD
        supplies = program.find_mapping('supplies')
        assert supplies.value_type.kind is TypeKind.STRUCT
        assert supplies.value_type.fields['frozen'].primitive is \
            PrimitiveKind.BOOLEAN
        assert program.find_function('unknown') is None

    def test_aleo_type_alias(self):
        document = definitions()
        field = document['programs'][0]['functions'][0]['inputs'][0]
        field['aleoType'] = field.pop('type')
        programs = parse_definitions(document)
        assert programs[0].functions[0].inputs[0].type.primitive is \
            PrimitiveKind.FIELD

    def test_duplicate_table_is_rejected(self):
        document = definitions()
        document['programs'][0]['mappings'][1]['tableName'] = 'balances'
        with pytest.raises(ConfigurationError, match='duplicate table'):
            parse_definitions(document)

    def test_reserved_table_is_rejected(self):
        document = definitions()
        document['programs'][0]['functions'][0]['tableName'] = 'transactions'
        with pytest.raises(ConfigurationError, match='reserved'):
            parse_definitions(document)

    def test_duplicate_function_is_rejected(self):
        document = definitions()
        functions = document['programs'][0]['functions']
        functions[1]['name'] = functions[0]['name']
        with pytest.raises(ConfigurationError, match='duplicate function'):
            parse_definitions(document)

    def test_duplicate_program_is_rejected(self):
        document = definitions()
        document['programs'].append({'programId': PROGRAM_ID})
        with pytest.raises(ConfigurationError, match='duplicate program'):
            parse_definitions(document)

    def test_trigger_of_unknown_mapping_is_rejected(self):
        document = definitions()
        trigger = document['programs'][0]['functions'][0][
            'triggersMappingUpdates'][0]
        trigger['mappingName'] = 'allowances'
        with pytest.raises(ConfigurationError, match='unknown mapping'):
            parse_definitions(document)

    def test_trigger_of_unknown_program_is_rejected(self):
        document = definitions()
        trigger = document['programs'][0]['functions'][0][
            'triggersMappingUpdates'][0]
        trigger['programId'] = 'credits.aleo'
        with pytest.raises(ConfigurationError, match='unknown program'):
            parse_definitions(document)

    def test_missing_key_is_rejected(self):
        document = definitions()
        del document['programs'][0]['functions'][0]['tableName']
        with pytest.raises(ConfigurationError):
            parse_definitions(document)


class TestParseSemanticType:

    def test_unknown_primitive(self):
        with pytest.raises(ConfigurationError, match='u256'):
            parse_semantic_type({'kind': 'primitive', 'type': 'u256'})

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError, match='tuple'):
            parse_semantic_type({'kind': 'tuple'})

    def test_array(self):
        array = parse_semantic_type({
            'kind': 'array',
            'arrayType': {
                'kind': 'primitive',
                'type': 'u32'
            },
            'length': 4
        })
        assert array.kind is TypeKind.ARRAY
        assert array.length == 4
        assert array.element_type.primitive is PrimitiveKind.U32

    def test_record(self):
        record = parse_semantic_type({
            'kind': 'record',
            'recordName': 'Token',
            'fields': {
                'owner': {
                    'kind': 'primitive',
                    'type': 'address'
                }
            }
        })
        assert record.kind is TypeKind.RECORD
        assert record.name == 'Token'
        assert record.fields['owner'].primitive is PrimitiveKind.ADDRESS


class TestLoadDefinitions:

    def test_load(self, tmp_path):
        path = tmp_path / 'programs.json'
        path.write_text(json.dumps(DEFINITIONS), encoding='utf-8')
        programs = load_definitions(str(path))
        assert programs[0].program_id == PROGRAM_ID

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_definitions(str(tmp_path / 'missing.json'))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'programs.json'
        path.write_text('{programs: ', encoding='utf-8')
        with pytest.raises(ConfigurationError):
            load_definitions(str(path))
