"""Module which encapsulates the core domain objects.

"""
import dataclasses
import enum
import typing


class PrimitiveKind(str, enum.Enum):
    """Enumeration of the primitive Aleo types which can be indexed.

    """
    ADDRESS = 'address'
    FIELD = 'field'
    BOOLEAN = 'boolean'
    U8 = 'u8'
    U16 = 'u16'
    U32 = 'u32'
    U64 = 'u64'
    U128 = 'u128'

    @staticmethod
    def from_name(name: str) -> 'PrimitiveKind':
        """Find an enumeration member by its value.

        Parameters
        ----------
        name : str
            The name to search for, e.g. "u64".

        Raises
        ------
        NameError
            If no enumeration member can be found for the given name.

        """
        name_lower = name.lower()
        for primitive_kind in PrimitiveKind:
            if name_lower == primitive_kind.value:
                return primitive_kind
        raise NameError(name)


class TypeKind(str, enum.Enum):
    """Enumeration of the semantic type variants.

    """
    PRIMITIVE = 'primitive'
    STRUCT = 'struct'
    RECORD = 'record'
    ARRAY = 'array'


@dataclasses.dataclass(frozen=True)
class SemanticType:
    """Tagged union describing the type of an indexed value.

    Attributes
    ----------
    kind : TypeKind
        The variant of the type.
    primitive : PrimitiveKind, optional
        The primitive kind (primitive types only).
    name : str, optional
        The struct or record name (struct and record types only).
    fields : dict of str to SemanticType
        The member types (struct and record types only).
    element_type : SemanticType, optional
        The element type (array types only).
    length : int, optional
        The array length (array types only).

    """
    kind: TypeKind
    primitive: typing.Optional[PrimitiveKind] = None
    name: typing.Optional[str] = None
    fields: typing.Mapping[str, 'SemanticType'] = dataclasses.field(
        default_factory=dict)
    element_type: typing.Optional['SemanticType'] = None
    length: typing.Optional[int] = None

    @staticmethod
    def of_primitive(primitive: PrimitiveKind) -> 'SemanticType':
        return SemanticType(TypeKind.PRIMITIVE, primitive=primitive)

    @staticmethod
    def of_struct(name: str,
                  fields: typing.Mapping[str,
                                         'SemanticType']) -> 'SemanticType':
        return SemanticType(TypeKind.STRUCT, name=name, fields=dict(fields))

    @staticmethod
    def of_record(name: str,
                  fields: typing.Mapping[str,
                                         'SemanticType']) -> 'SemanticType':
        return SemanticType(TypeKind.RECORD, name=name, fields=dict(fields))

    @staticmethod
    def of_array(element_type: 'SemanticType',
                 length: int) -> 'SemanticType':
        return SemanticType(TypeKind.ARRAY, element_type=element_type,
                            length=length)

    @property
    def is_primitive(self) -> bool:
        return self.kind is TypeKind.PRIMITIVE


@dataclasses.dataclass(frozen=True)
class FieldDefinition:
    """Extraction rule for one input or output column of a function.

    Attributes
    ----------
    name : str
        The column name, and the id matched against the transition's
        inputs or outputs when no raw path is configured.
    type : SemanticType
        The semantic type of the value.
    rpc_path : str, optional
        Path into the raw transaction, e.g.
        "transaction.execution.transitions[0].inputs[1].value".
    parsed_path : str, optional
        Path into the parsed struct or array literal found at the raw
        path (outputs only).

    """
    name: str
    type: SemanticType
    rpc_path: typing.Optional[str] = None
    parsed_path: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class MappingTrigger:
    """Mapping update emitted whenever a function row is produced.

    """
    program_id: str
    mapping_name: str
    key_source: str
    key_type: typing.Optional[SemanticType] = None
    value_source: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class FunctionDefinition:
    """Indexing configuration of one program function.

    """
    name: str
    table_name: str
    inputs: tuple[FieldDefinition, ...] = ()
    outputs: tuple[FieldDefinition, ...] = ()
    extract: typing.Mapping[str, str] = dataclasses.field(
        default_factory=dict)
    triggers: tuple[MappingTrigger, ...] = ()


@dataclasses.dataclass(frozen=True)
class MappingKey:
    """Key configuration of a mapping.

    """
    name: str
    type: SemanticType
    rpc_path: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class MappingDefinition:
    """Indexing configuration of one program mapping.

    """
    name: str
    table_name: str
    key: MappingKey
    value_type: SemanticType
    rpc_value_path: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class ProgramDefinition:
    """Indexing configuration of one on-chain program.

    """
    program_id: str
    functions: tuple[FunctionDefinition, ...] = ()
    mappings: tuple[MappingDefinition, ...] = ()

    def find_function(
            self, name: typing.Optional[str]
    ) -> typing.Optional[FunctionDefinition]:
        for function in self.functions:
            if function.name == name:
                return function
        return None

    def find_mapping(
            self, name: typing.Optional[str]
    ) -> typing.Optional[MappingDefinition]:
        for mapping in self.mappings:
            if mapping.name == name:
                return mapping
        return None


class TransactionStatus(str, enum.Enum):
    """Enumeration of transaction statuses returned by the RPC.

    """
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    FINALIZED = 'finalized'


Transaction = typing.NewType('Transaction', dict[str, typing.Any])
"""Raw transaction as returned by the aleoTransactionsForProgram RPC."""

Transition = typing.NewType('Transition', dict[str, typing.Any])
"""Raw transition of a transaction's execution."""


def get_transaction_id(transaction: Transaction) -> str:
    """Get the chain id of a raw transaction.

    Parameters
    ----------
    transaction : Transaction
        The raw transaction.

    Returns
    -------
    str
        The transaction id.

    """
    return transaction['transaction']['id']


def get_finalized_at(transaction: Transaction) -> int:
    """Get the finalization time of a raw transaction in unix
    seconds, 0 if the transaction carries none.

    """
    finalized_at = transaction.get('finalizedAt')
    if finalized_at is None or finalized_at == '':
        return 0
    return int(finalized_at)


def is_indexable(transaction: Transaction) -> bool:
    """Whether a fetched transaction is finalized, or an accepted
    execution.

    """
    status = transaction.get('status')
    return (status == TransactionStatus.FINALIZED.value
            or (status == TransactionStatus.ACCEPTED.value
                and transaction.get('type') == 'execute'))


@dataclasses.dataclass(frozen=True)
class MappingUpdateCandidate:
    """Request to refresh one mapping key, observed while processing
    transactions.

    Attributes
    ----------
    program_id : str
        The program owning the mapping.
    mapping_name : str
        The name of the mapping.
    key : str
        The mapping key as a typed literal.
    block_height : int
        The block height at which the update was observed.
    value : any, optional
        The new value when known without asking the RPC.

    """
    program_id: str
    mapping_name: str
    key: str
    block_height: int
    value: typing.Any = None

    @property
    def identity(self) -> tuple[str, str, str]:
        return self.program_id, self.mapping_name, self.key
